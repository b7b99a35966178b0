"""Playback hand-off: builds the Jellyfin HLS master playlist URL for a library entry.

Jellyfin does all transcoding; we only describe what the browser player can decode.
"""

import uuid
from urllib.parse import urlencode

from jellystreaming.config.settings import JellyfinSettings
from jellystreaming.domain.entities import LibraryEntry, PlaybackOptions
from jellystreaming.domain.exceptions import ConfigurationError
from jellystreaming.domain.ports import IPlaybackLauncher

# Max video bitrate per quality level, bits/s
QUALITY_BITRATES: dict[str, int] = {
    "auto": 20_000_000,
    "1080p": 10_000_000,
    "720p": 5_000_000,
    "480p": 2_500_000,
    "360p": 1_000_000,
    "240p": 500_000,
}


class JellyfinPlaybackLauncher(IPlaybackLauncher):
    """Builds `/Videos/{id}/master.m3u8` URLs with codec and bitrate preferences."""

    def __init__(self, settings: JellyfinSettings) -> None:
        self.settings = settings

    def launch(self, entry: LibraryEntry, options: PlaybackOptions | None = None) -> str:
        options = options or PlaybackOptions()
        return self.build_stream_url(
            entry,
            quality=options.quality,
            audio_stream_index=options.audio_stream_index,
            subtitle_stream_index=options.subtitle_stream_index,
        )

    def build_stream_url(
        self,
        entry: LibraryEntry,
        quality: str = "auto",
        audio_stream_index: int | None = None,
        subtitle_stream_index: int | None = None,
    ) -> str:
        """Build the HLS master playlist URL.

        Args:
            entry: Library entry to play
            quality: Key of QUALITY_BITRATES; unknown values fall back to "auto"
            audio_stream_index: Audio track to select, if any
            subtitle_stream_index: Subtitle track to burn in, if any

        Returns:
            Absolute master.m3u8 URL

        Raises:
            ConfigurationError: If Jellyfin isn't configured
        """
        if not self.settings.is_configured:
            raise ConfigurationError("jellyfin is not configured")

        session_id = f"{self.settings.device_name}-{uuid.uuid4().hex[:12]}"
        auto = quality not in QUALITY_BITRATES or quality == "auto"
        params: dict[str, str | int] = {
            "api_key": self.settings.api_key,
            "DeviceId": session_id,
            "MediaSourceId": entry.library_id,
            "PlaySessionId": session_id,
            "VideoCodec": "h264,hevc,vp9,av1",
            "AudioCodec": "aac,mp3,opus",
            "VideoBitrate": QUALITY_BITRATES.get(quality, QUALITY_BITRATES["auto"]),
            "AudioBitrate": 192_000,
            "MaxVideoBitDepth": 8,
            "TranscodingMaxAudioChannels": 2,
            "RequireAvc": "false",
            "SegmentContainer": "mp4",
            "SegmentLength": 3,
            "MinSegments": 1,
            "BreakOnNonKeyFrames": "false",
            "EnableAutoStreamCopy": "true" if auto else "false",
            "AllowVideoStreamCopy": "true" if auto else "false",
            "AllowAudioStreamCopy": "true",
        }
        if audio_stream_index is not None:
            params["AudioStreamIndex"] = audio_stream_index
        if subtitle_stream_index is not None and subtitle_stream_index >= 0:
            params["SubtitleStreamIndex"] = subtitle_stream_index
            params["SubtitleMethod"] = "Encode"

        return f"{self.settings.url}/Videos/{entry.library_id}/master.m3u8?{urlencode(params)}"


__all__ = ["QUALITY_BITRATES", "JellyfinPlaybackLauncher"]
