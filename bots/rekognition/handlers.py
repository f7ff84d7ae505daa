"""
Request handling for the /rekognition slash commands.

Kept apart from bot.py so the flow can be driven with a fake context
and a fake Rekognition client. Every path ends in exactly one final
edit of the deferred reply, success or failure.

Flow for analyze:
    defer -> client -> parse features -> acquire image -> progress edit
    -> run_analyses -> save report -> embed + files edit
Flow for compare:
    defer -> client -> acquire source + target -> progress edit
    -> compare_faces -> save report -> embed + files edit
"""

import asyncio
import logging
from typing import Callable, Optional, Set

import aiohttp
from interactions import File

from common.config import ANALYSIS_TIMEOUT, DEFAULT_SIMILARITY, TEMP_SWEEP_DELAY, load_rekognition_settings
from common.tempfiles import sweep_later
from vision.acquisition import fetch_image_from_url, fetch_uploaded_image
from vision.analysis import compare_faces, normalize_threshold, ordered, parse_features, run_analyses, threshold_to_percent
from vision.errors import InvalidInput, VisionError
from vision.formatting import analysis_embed, comparison_embed, user_error_message
from vision.rekognition import RekognitionClient
from vision.reports import build_analysis_report, build_comparison_report, save_report

logger = logging.getLogger("RekognitionBot")


def _default_client_factory():
    return RekognitionClient.from_settings(load_rekognition_settings())


class RekognitionHandlers:
    """
    Owns the Rekognition client and runs both subcommands.

    The client is built on first use so a bot started without AWS
    credentials still answers every command with a configuration error
    instead of crashing on startup.
    """

    def __init__(
            self,
            client_factory: Callable[[], object] = _default_client_factory,
            temp_dir=None,
            analysis_timeout: Optional[float] = ANALYSIS_TIMEOUT,
            sweep_delay: Optional[float] = TEMP_SWEEP_DELAY,
    ):
        self._client_factory = client_factory
        self._client = None
        self.temp_dir = temp_dir
        self.analysis_timeout = analysis_timeout
        self.sweep_delay = sweep_delay
        # Strong refs so pending sweeps aren't garbage collected
        self._background: Set[asyncio.Task] = set()

    @property
    def client(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    # ============== IMAGE INPUT ==============

    async def _acquire(self, session, url: Optional[str], attachment, prefix: str = ""):
        """Attachment wins over URL when both are given."""
        if attachment is not None:
            return await fetch_uploaded_image(
                attachment.url,
                attachment.filename,
                content_type=getattr(attachment, "content_type", None),
                size=getattr(attachment, "size", None),
                prefix=prefix,
                session=session,
                temp_dir=self.temp_dir,
            )
        return await fetch_image_from_url(url, prefix=prefix, session=session, temp_dir=self.temp_dir)

    async def _acquire_pair(self, session, source, target):
        """
        Download source and target together.

        If either download fails the other one is cancelled and awaited
        before the error propagates, so nothing keeps using the session
        or writing temp files after the reply.
        """
        tasks = [
            asyncio.create_task(self._acquire(session, *source, "source"), name="acquire-source"),
            asyncio.create_task(self._acquire(session, *target, "target"), name="acquire-target"),
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # ============== ANALYZE ==============

    async def analyze(self, ctx, url: Optional[str] = None, image=None, features: Optional[str] = None):
        await ctx.defer()
        try:
            client = self.client
            if not url and image is None:
                raise InvalidInput("Please provide either an image URL or upload an image file.")

            requested = parse_features(features)

            async with aiohttp.ClientSession() as session:
                source = await self._acquire(session, url, image)

            names = [f.value for f in ordered(requested)]
            await ctx.edit(content=f"🔍 **Analyzing Image**\nRunning {len(names)} analysis feature(s): {', '.join(names)}...")

            results = await run_analyses(client, source, requested, timeout=self.analysis_timeout)

            document = build_analysis_report(results, source.source)
            report_path = await asyncio.to_thread(save_report, document, "analysis", self.temp_dir)

            files = [File(report_path, file_name="analysis_report.json")]
            thumbnail = None
            if source.path is not None:
                thumbnail = source.path.name
                files.append(File(source.path, file_name=thumbnail))

            embed = analysis_embed(results, source.source, thumbnail_name=thumbnail)
            await ctx.edit(
                content="✅ **Analysis Complete!** Results are shown below with detailed JSON report attached.",
                embeds=[embed],
                files=files,
            )
        except Exception as e:
            await self._reply_error(ctx, e, "analyze")
        finally:
            self._schedule_sweep()

    # ============== COMPARE ==============

    async def compare(
            self,
            ctx,
            source_url: Optional[str] = None,
            source_image=None,
            target_url: Optional[str] = None,
            target_image=None,
            similarity: Optional[float] = None,
    ):
        await ctx.defer()
        try:
            client = self.client
            if not source_url and source_image is None:
                raise InvalidInput("Please provide either a source image URL or upload a source image.")
            if not target_url and target_image is None:
                raise InvalidInput("Please provide either a target image URL or upload a target image.")

            threshold = normalize_threshold(similarity, default=DEFAULT_SIMILARITY)
            percent = threshold_to_percent(threshold)

            await ctx.edit(content=f"🔄 **Preparing Face Comparison**\nSimilarity threshold: {percent:g}%")

            async with aiohttp.ClientSession() as session:
                source, target = await self._acquire_pair(
                    session, (source_url, source_image), (target_url, target_image)
                )

            await ctx.edit(content="🔍 **Comparing Faces**\nAnalyzing facial features and calculating similarity...")

            result = await compare_faces(client, source, target, threshold)

            document = build_comparison_report(result, source.source, target.source, percent)
            report_path = await asyncio.to_thread(save_report, document, "comparison", self.temp_dir)

            files = [File(report_path, file_name="comparison_report.json")]
            for img in (source, target):
                if img.path is not None:
                    files.append(File(img.path, file_name=img.path.name))

            embed = comparison_embed(result, source.source, target.source, percent)
            await ctx.edit(
                content="✅ **Face Comparison Complete!** Results are shown below with detailed report attached.",
                embeds=[embed],
                files=files,
            )
        except Exception as e:
            await self._reply_error(ctx, e, "compare")
        finally:
            self._schedule_sweep()

    # ============== HELPERS ==============

    async def _reply_error(self, ctx, error: Exception, subcommand: str):
        if isinstance(error, VisionError):
            logger.warning(f"/rekognition {subcommand} failed ({error.kind.value}): {error}")
        else:
            logger.exception(f"/rekognition {subcommand} crashed")

        try:
            await ctx.edit(content=user_error_message(error))
        except Exception as edit_error:
            logger.error(f"Failed to edit reply: {edit_error}")

    async def close(self):
        """Cancel pending delayed sweeps. Called on shutdown."""
        pending = list(self._background)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if pending:
            logger.info(f"Cancelled {len(pending)} pending temp sweep(s)")

    def _schedule_sweep(self):
        if self.sweep_delay is None:
            return
        task = asyncio.create_task(sweep_later(self.sweep_delay, self.temp_dir))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
