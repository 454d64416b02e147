import shutil
from pathlib import Path
from typing import Optional

from ...exceptions import SynthesisError
from ...models import DialogueLine, SpeechClip
from ...utils.logger import logger
from ..config.settings import Settings
from .elevenlabs_client import ElevenLabsClient


class AudioGenerator:
    """Produce one speech clip per dialogue line.

    ``voice.provider`` selects the source: ``elevenlabs`` calls the API,
    ``fixture`` copies pre-recorded ``<name>_<index>.mp3`` files from
    ``voice.fixture_dir`` (offline runs and tests).
    """

    def __init__(
        self,
        settings: Settings,
        temp_dir: Path,
        client: Optional[ElevenLabsClient] = None,
    ):
        self.settings = settings
        self.voice = settings.voice
        self.temp_dir = Path(temp_dir)
        self.provider = self.voice.provider
        self._client = client

    @property
    def client(self) -> ElevenLabsClient:
        if self._client is None:
            self._client = ElevenLabsClient(
                self.voice.api_key,
                base_url=self.voice.base_url,
                model_id=self.voice.model_id,
                voice_settings=self.voice.voice_settings_payload(),
                timeout=self.voice.timeout,
                max_chars=self.voice.max_chars,
            )
        return self._client

    def clip_path(self, index: int, line: DialogueLine) -> Path:
        name = self.settings.character(line.speaker).name.lower()
        return self.temp_dir / f"{index:03d}_{name}.mp3"

    async def generate_audio(self, index: int, line: DialogueLine) -> SpeechClip:
        """
        Generates a single audio file for a dialogue line.

        Args:
            index: Position of the line in the script (0-based).
            line: The dialogue line.

        Returns:
            SpeechClip: Unmeasured clip; the duration is probed later.
        """
        output_path = self.clip_path(index, line)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        character = self.settings.character(line.speaker)

        if self.provider == "fixture":
            self._copy_fixture(character.name, index, output_path)
        else:
            logger.info(
                f"[Audio] Generating for '{line.text[:20]}...' with voice={character.voice_id} -> {output_path.name}"
            )
            audio = await self.client.synthesize(line.text, character.voice_id)
            output_path.write_bytes(audio)

        return SpeechClip(
            speaker=line.speaker,
            source_line_index=index,
            audio_path=output_path,
        )

    def _copy_fixture(self, speaker_name: str, index: int, output_path: Path) -> None:
        if not self.voice.fixture_dir:
            raise SynthesisError("voice.fixture_dir is not configured.")
        src = Path(self.voice.fixture_dir) / f"{speaker_name.lower()}_{index}.mp3"
        if not src.is_file():
            raise SynthesisError(f"Fixture audio file not found: {src}")
        shutil.copyfile(src, output_path)
        logger.debug(f"[Audio] Copied fixture {src.name} -> {output_path.name}")
