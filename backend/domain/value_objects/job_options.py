"""
Job Options Value Objects

The three encoding modes a client can request, modelled as a pydantic
discriminated union keyed on ``type``. Anything that does not match one of
the variants is rejected at parse time.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from constants import FilenameConfig, YtDlpFormats


class _Options(BaseModel):
    model_config = ConfigDict(frozen=True)


class SimpleOptions(_Options):
    """Best-quality download in a given container (mp3 means audio only)"""

    type: Literal["simple"]
    ext: str = Field(pattern=FilenameConfig.EXTENSION_PATTERN, description="Output extension, e.g. mp4 or mp3")

    @property
    def output_extension(self) -> str:
        return self.ext


class ExpertVideoOptions(_Options):
    """Exact video + audio format ids merged into an mp4 container"""

    type: Literal["expert_video"]
    vcodec_id: str = Field(min_length=1, description="yt-dlp format id of the video stream")
    acodec_id: str = Field(min_length=1, description="yt-dlp format id of the audio stream")

    @property
    def output_extension(self) -> str:
        return YtDlpFormats.MERGED_VIDEO_CONTAINER


class ExpertAudioOptions(_Options):
    """Exact audio format id, extracted and converted to ``ext``"""

    type: Literal["expert_audio"]
    acodec_id: str = Field(min_length=1, description="yt-dlp format id of the audio stream")
    ext: str = Field(pattern=FilenameConfig.EXTENSION_PATTERN, description="Target audio format, e.g. mp3 or m4a")
    audio_quality: Optional[Union[int, str]] = Field(None, description="yt-dlp --audio-quality value")

    @property
    def output_extension(self) -> str:
        return self.ext


JobOptions = Annotated[
    Union[SimpleOptions, ExpertVideoOptions, ExpertAudioOptions],
    Field(discriminator="type"),
]

job_options_adapter = TypeAdapter(JobOptions)
