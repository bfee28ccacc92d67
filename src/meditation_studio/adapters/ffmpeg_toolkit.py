"""ffprobe/ffmpeg subprocess adapter for probing and mixing audio."""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from meditation_studio.domain.errors import MediaToolError
from meditation_studio.services.mixing import MediaToolkit

_logger = logging.getLogger(__name__)


def build_probe_command(ffprobe: str, path: Path) -> list[str]:
    """Return the ffprobe command printing a file's duration in seconds."""
    return [
        ffprobe,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]


def parse_probe_output(stdout: str) -> float:
    """Parse ffprobe's duration output."""
    value = stdout.strip().splitlines()[0].strip() if stdout.strip() else ""
    try:
        duration = float(value)
    except ValueError as exc:
        raise MediaToolError(f"Unreadable duration from ffprobe: {value!r}") from exc
    if duration <= 0:
        raise MediaToolError(f"Non-positive duration from ffprobe: {duration}")
    return duration


def build_mix_command(  # noqa: PLR0913
    ffmpeg: str,
    *,
    speech_path: Path,
    music_path: Path,
    output_path: Path,
    music_gain: float,
    cover_art_path: Path | None = None,
) -> list[str]:
    """Return the ffmpeg command overlaying speech on attenuated music.

    Output lasts as long as the longer input. Cover art, when given, is
    attached as a static picture stream.
    """
    command = [
        ffmpeg,
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(speech_path),
        "-i",
        str(music_path),
    ]
    if cover_art_path is not None:
        command += ["-i", str(cover_art_path)]
    command += [
        "-filter_complex",
        (
            f"[1:a]volume={music_gain}[music];"
            "[0:a][music]amix=inputs=2:duration=longest:normalize=0[mixed]"
        ),
        "-map",
        "[mixed]",
    ]
    if cover_art_path is not None:
        command += [
            "-map",
            "2:v",
            "-c:v",
            "copy",
            "-disposition:v:0",
            "attached_pic",
            "-id3v2_version",
            "3",
            "-metadata:s:v",
            "title=Album cover",
            "-metadata:s:v",
            "comment=Cover (front)",
        ]
    command += ["-c:a", "libmp3lame", "-q:a", "4", str(output_path)]
    return command


@dataclass
class FfmpegToolkit(MediaToolkit):
    """Media toolkit running ffprobe and ffmpeg as child processes."""

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"

    async def probe_duration(self, path: Path) -> float:
        """Return the duration of an audio file in seconds."""
        stdout = await self._run(build_probe_command(self.ffprobe_binary, path))
        return parse_probe_output(stdout)

    async def mix(
        self,
        *,
        speech_path: Path,
        music_path: Path,
        output_path: Path,
        music_gain: float,
        cover_art_path: Path | None = None,
    ) -> None:
        """Run ffmpeg and fail unless it exits cleanly with an output file."""
        await self._run(
            build_mix_command(
                self.ffmpeg_binary,
                speech_path=speech_path,
                music_path=music_path,
                output_path=output_path,
                music_gain=music_gain,
                cover_art_path=cover_art_path,
            )
        )
        if not output_path.exists():
            raise MediaToolError(f"ffmpeg produced no output at {output_path}")

    async def _run(self, command: list[str]) -> str:
        binary = shutil.which(command[0])
        if binary is None:
            raise MediaToolError(f"{command[0]} is required but not found in PATH")
        _logger.debug("Running %s", " ".join(command))
        process = await asyncio.create_subprocess_exec(
            binary,
            *command[1:],
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            _logger.error(
                "%s exited with code %s: %s",
                command[0],
                process.returncode,
                stderr.decode(errors="replace")[-1000:],
            )
            raise MediaToolError(
                f"{Path(command[0]).name} exited with code {process.returncode}"
            )
        return stdout.decode(errors="replace")
