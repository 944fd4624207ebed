"""ElevenLabs text-to-speech for clip narration."""

from pathlib import Path

from elevenlabs import ElevenLabs

from movieshorts.checkpoints import part_path
from movieshorts.reporter import Reporter


class Narrator:
    """Turns one clip's narration text into an MP3 file."""

    def __init__(
        self,
        client: ElevenLabs,
        voice_id: str,
        model_id: str,
        output_format: str,
        reporter: Reporter,
    ):
        self.client = client
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.reporter = reporter

    def synthesize(self, text: str, output_path: Path) -> Path | None:
        """Generate speech for `text` and save it to `output_path`.

        Returns the saved path, or None when the text is empty or the
        request fails. The stream is written to a .part sibling and only
        moved onto `output_path` once it is complete and non-empty.
        """
        if not text or not text.strip():
            self.reporter.warn(f"Empty narration for {Path(output_path).name}")
            return None

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        part = part_path(output_path)

        try:
            audio_iterator = self.client.text_to_speech.convert(
                voice_id=self.voice_id,
                text=text,
                model_id=self.model_id,
                output_format=self.output_format,
            )
            with open(part, "wb") as f:
                for chunk in audio_iterator:
                    f.write(chunk)
        except Exception as e:
            self.reporter.warn(f"Narration failed for {output_path.name}: {e}")
            part.unlink(missing_ok=True)
            return None

        if part.stat().st_size == 0:
            self.reporter.warn(f"Narration for {output_path.name} came back empty")
            part.unlink(missing_ok=True)
            return None
        part.replace(output_path)

        size_kb = output_path.stat().st_size / 1024
        self.reporter.info(f"Narration saved: {output_path.name} ({size_kb:.1f} KB)")
        return output_path
