"""コマンドラインから動画生成パイプラインを実行するエントリポイント。"""

import argparse
import asyncio
import os
import sys
import time
import traceback
from pathlib import Path
from typing import Dict, List, Optional

from peetle.exceptions import PipelineError, ValidationError
from peetle.pipeline import run_generation
from peetle.utils.logger import (
    KVLogger,
    get_logger,
    setup_logging,
    shutdown_logging,
)


def _parse_image_pairs(pairs: Optional[List[str]]) -> Dict[str, str]:
    """``name=path`` の繰り返し指定を辞書にする。"""
    mapping: Dict[str, str] = {}
    for pair in pairs or []:
        name, sep, path = pair.partition("=")
        if not sep or not name.strip() or not path.strip():
            raise ValidationError(f"--image expects name=path, got '{pair}'.")
        mapping[name.strip()] = path.strip()
    return mapping


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a two-character dialogue script into a vertical video with ElevenLabs and FFmpeg."
    )
    parser.add_argument(
        "script_path",
        type=str,
        help="Path to the dialogue script (.yaml or a 'Name: text' transcript).",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help=(
            "Path to the output video file. If omitted, a timestamped file like "
            "'output/<script>_YYYYMMDD_HHMMSS.mp4' is used."
        ),
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file merged on top of the default configuration.",
    )
    parser.add_argument(
        "--images",
        type=str,
        default=None,
        help="Directory searched for placeholder images named after the placeholder.",
    )
    parser.add_argument(
        "--image",
        action="append",
        metavar="NAME=PATH",
        help="Explicit image for a placeholder. May be given several times.",
    )
    parser.add_argument(
        "--captions",
        type=str,
        choices=["word", "line"],
        default=None,
        help="Caption style: word-by-word pop-in or whole-line subtitles. Overrides config.",
    )
    parser.add_argument(
        "--timeline",
        type=str,
        nargs="?",
        const="md",
        default=None,
        choices=["md", "csv", "both"],
        help='Write a timeline beside the video. Format "md", "csv" or "both" (default "md").',
    )
    parser.add_argument(
        "--subtitle-file",
        type=str,
        nargs="?",
        const="srt",
        default=None,
        choices=["srt", "ass", "both"],
        help='Write a subtitle file beside the video. Format "srt", "ass" or "both" (default "srt").',
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="If set, outputs logs in machine-readable JSON format.",
    )
    parser.add_argument(
        "--log-kv",
        action="store_true",
        help="If set, outputs logs in human-readable Key-Value pair format.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (includes full FFmpeg commands).",
    )
    return parser


async def main(argv: Optional[List[str]] = None) -> None:
    """コマンドライン引数を解析し動画生成を実行する。"""
    args = build_parser().parse_args(argv)

    setup_logging(log_json=args.log_json, debug_mode=args.debug, log_kv=args.log_kv)
    logger: KVLogger = get_logger()

    if not args.output:
        script_name = os.path.splitext(os.path.basename(args.script_path))[0]
        ts = time.strftime("%Y%m%d_%H%M%S")
        args.output = f"output/{script_name}_{ts}.mp4"

    Path(args.output).parent.mkdir(parents=True, exist_ok=True)

    start_time = time.time()

    try:
        logger.kv_info(
            "Video generation started.", kv_pairs={"Event": "GenerationStart"}
        )
        final_path = await run_generation(
            args.script_path,
            args.output,
            config_path=args.config,
            images_dir=args.images,
            image_map=_parse_image_pairs(args.image),
            captions_mode=args.captions,
            timeline_format=args.timeline,
            subtitle_file_format=args.subtitle_file,
        )
        elapsed_time = time.time() - start_time
        logger.kv_info(
            f"Video generation completed successfully: {final_path}",
            kv_pairs={"Event": "GenerationSuccess", "OutputPath": str(final_path)},
        )
        logger.kv_info(
            f"Total execution time: {elapsed_time:.2f} seconds.",
            kv_pairs={
                "Event": "TotalExecutionTime",
                "Duration": f"{elapsed_time:.2f}s",
            },
        )
    except ValidationError as e:
        elapsed_time = time.time() - start_time
        logger.kv_error(
            f"Validation Error: {e.message}",
            kv_pairs={
                "Event": "ValidationError",
                "Message": e.message,
                "Line": e.line_number,
                "Column": e.column_number,
            },
        )
        logger.kv_error(
            f"Total execution time before error: {elapsed_time:.2f} seconds.",
            kv_pairs={
                "Event": "TotalExecutionTimeOnError",
                "Duration": f"{elapsed_time:.2f}s",
            },
        )
        sys.exit(1)
    except PipelineError as e:
        elapsed_time = time.time() - start_time
        logger.kv_error(
            str(e),
            kv_pairs={
                "Event": type(e).__name__,
                "Message": e.message,
                "Duration": f"{elapsed_time:.2f}s",
            },
        )
        sys.exit(1)
    except Exception as e:
        elapsed_time = time.time() - start_time
        logger.kv_error(
            f"An unexpected error occurred during generation: {e}",
            kv_pairs={
                "Event": "UnexpectedError",
                "Message": str(e),
                "Traceback": traceback.format_exc(),
            },
        )
        logger.kv_error(
            f"Total execution time before error: {elapsed_time:.2f} seconds.",
            kv_pairs={
                "Event": "TotalExecutionTimeOnError",
                "Duration": f"{elapsed_time:.2f}s",
            },
        )
        sys.exit(1)
    finally:
        shutdown_logging()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
