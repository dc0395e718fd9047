"""Burns rendered subtitle files into a video using ffmpeg's subtitles filter."""

import ffmpeg
import os
import logging
import threading
from typing import List, Optional

from .exceptions import BurnError
from .utils import ensure_dir_exists, remove_file, run_stream, stderr_text

logger = logging.getLogger(__name__)

class VideoBurner:
    """Re-encodes a video with subtitles drawn onto the frames."""

    def __init__(self, ffmpeg_path: Optional[str] = None, timeout: Optional[float] = None):
        """
        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            timeout: Seconds allowed for one burn. Long videos need a generous value.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.timeout = timeout

    def _burn_stream(self, video_path: str, subtitle_path: str, style_directives: str, output_path: str):
        source = ffmpeg.input(video_path)
        filter_kwargs = {'force_style': style_directives} if style_directives else {}
        # Keyword options get one option-level escape plus the graph-level one;
        # positional filter args are escaped one level too many.
        video = source.video.filter('subtitles', filename=subtitle_path, **filter_kwargs)
        # 'a?' maps audio only when the source has any
        return (
            ffmpeg
            .output(video, source['a?'], output_path, acodec='copy', loglevel='error')
            .overwrite_output()
        )

    def build_burn_args(self, video_path: str, subtitle_path: str, style_directives: str, output_path: str) -> List[str]:
        """
        Builds the ffmpeg argument vector.

        The subtitle path and force_style string are passed as filter options,
        which ffmpeg-python escapes exactly as the filtergraph parser expects,
        so paths containing quotes, colons or commas open correctly.
        """
        return self._burn_stream(video_path, subtitle_path, style_directives, output_path).compile(cmd=self.ffmpeg_cmd)

    def burn_subtitles(
        self,
        video_path: str,
        subtitle_path: str,
        style_directives: str,
        output_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Writes a copy of video_path with subtitle_path burned in.

        Args:
            video_path: Source video.
            subtitle_path: SRT or ASS file produced by SubtitleRenderer.
            style_directives: force_style string, e.g. StyleOptions.burn_directives().
            output_path: Destination video file.
            cancel_event: Kills ffmpeg when set.

        Returns:
            output_path.

        Raises:
            FileNotFoundError: If the video or subtitle file does not exist.
            BurnError: If ffmpeg fails.
            SubprocessTimeout: If ffmpeg runs past the timeout.
        """
        for path in (video_path, subtitle_path):
            if not os.path.isfile(path):
                raise FileNotFoundError(f"Input file not found: {path}")
        ensure_dir_exists(os.path.dirname(os.path.abspath(output_path)))

        logger.info(f"Burning {subtitle_path} into {video_path} -> {output_path}")
        logger.debug(f"Style directives: {style_directives}")
        stream = self._burn_stream(video_path, subtitle_path, style_directives, output_path)
        try:
            run_stream(stream, cmd=self.ffmpeg_cmd, timeout=self.timeout, cancel_event=cancel_event)
        except ffmpeg.Error as e:
            stderr_output = stderr_text(e)
            logger.error(f"ffmpeg stderr: {stderr_output}")
            remove_file(output_path)
            raise BurnError(f"ffmpeg failed to burn subtitles into {video_path}: {stderr_output}") from e
        except OSError as e:
            remove_file(output_path)
            raise BurnError(f"Could not run {self.ffmpeg_cmd}: {e}") from e
        except BaseException:
            remove_file(output_path)
            raise

        logger.info(f"Subtitled video written to {output_path}")
        return output_path
