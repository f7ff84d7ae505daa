"""
Rekognition Bot
===============

Discord bot exposing AWS Rekognition through one slash command:

    /rekognition analyze  - labels, text (OCR), faces, moderation, celebrities
    /rekognition compare  - face similarity between two images

Results come back as an embed summary plus the full JSON report as an
attachment. Downloaded images and reports live in TEMP_DIR and are swept
shortly after each command and periodically while the bot runs.

Setup:
1. pip install -e .
2. Set REKOGNITION_BOT_TOKEN, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
   (and optionally AWS_REGION, GUILD_ID) in .env
3. python -m bots.rekognition.bot
"""

import asyncio
import signal
import sys

import interactions
from interactions import (
    Attachment,
    Client,
    Intents,
    IntervalTrigger,
    OptionType,
    SlashCommandChoice,
    SlashContext,
    Task,
    listen,
    slash_command,
    slash_option,
)

from common.config import BOT_TOKEN, GUILD_ID, TEMP_DIR
from common.logger import get_logger
from common.tempfiles import ensure_temp_dir, sweep_temp_dir
from .handlers import RekognitionHandlers

logger = get_logger("RekognitionBot")
get_logger("Vision")
get_logger("TempFiles")

# ============== CONFIGURATION ==============

client_kwargs = {"default_scope": int(GUILD_ID)} if GUILD_ID else {}

client = Client(
    token=BOT_TOKEN,
    intents=Intents.DEFAULT,
    **client_kwargs,
)

handlers = RekognitionHandlers()

FEATURE_CHOICES = [
    SlashCommandChoice(name="All Features (Recommended)", value="all"),
    SlashCommandChoice(name="Labels & Objects", value="labels"),
    SlashCommandChoice(name="Text Detection (OCR)", value="text"),
    SlashCommandChoice(name="Face Analysis", value="faces"),
    SlashCommandChoice(name="Content Moderation", value="moderation"),
    SlashCommandChoice(name="Celebrity Recognition", value="celebrities"),
]


# ============== EVENT HANDLERS ==============

@listen()
async def on_startup():
    logger.info(f"Logged in as {client.user.display_name} (ID: {client.user.id})")
    logger.info(f"Serving {len(client.guilds)} server(s)")

    ensure_temp_dir()
    logger.info(f"Temp directory: {TEMP_DIR}")
    periodic_sweep.start()

    await client.change_presence(
        status=interactions.Status.ONLINE,
        activity=interactions.Activity(
            name="images with AWS Rekognition | /rekognition",
            type=interactions.ActivityType.WATCHING,
        )
    )


@Task.create(IntervalTrigger(minutes=5))
async def periodic_sweep():
    await asyncio.to_thread(sweep_temp_dir)


# ============== COMMANDS ==============

@slash_command(
    name="rekognition",
    description="Analyze images and compare faces using AWS Rekognition",
    sub_cmd_name="analyze",
    sub_cmd_description="Comprehensive image analysis for objects, text, faces, and more",
)
@slash_option(name="url", description="URL of the image to analyze", required=False, opt_type=OptionType.STRING)
@slash_option(name="image", description="Upload an image to analyze", required=False, opt_type=OptionType.ATTACHMENT)
@slash_option(
    name="features",
    description="Analysis features to run",
    required=False,
    opt_type=OptionType.STRING,
    choices=FEATURE_CHOICES,
)
async def rekognition_analyze(ctx: SlashContext, url: str = None, image: Attachment = None, features: str = "all"):
    logger.info(f"/rekognition analyze by {ctx.author.username} (features={features})")
    await handlers.analyze(ctx, url=url, image=image, features=features)


@slash_command(
    name="rekognition",
    description="Analyze images and compare faces using AWS Rekognition",
    sub_cmd_name="compare",
    sub_cmd_description="Compare faces between two images",
)
@slash_option(name="source_url", description="URL of the source image (reference face)", required=False, opt_type=OptionType.STRING)
@slash_option(name="source_image", description="Upload source image (reference face)", required=False, opt_type=OptionType.ATTACHMENT)
@slash_option(name="target_url", description="URL of the target image to compare", required=False, opt_type=OptionType.STRING)
@slash_option(name="target_image", description="Upload target image to compare", required=False, opt_type=OptionType.ATTACHMENT)
@slash_option(
    name="similarity",
    description="Minimum similarity threshold (0-100, default: 80)",
    required=False,
    opt_type=OptionType.NUMBER,
    min_value=0,
    max_value=100,
)
async def rekognition_compare(
        ctx: SlashContext,
        source_url: str = None,
        source_image: Attachment = None,
        target_url: str = None,
        target_image: Attachment = None,
        similarity: float = None,
):
    logger.info(f"/rekognition compare by {ctx.author.username} (similarity={similarity})")
    await handlers.compare(
        ctx,
        source_url=source_url,
        source_image=source_image,
        target_url=target_url,
        target_image=target_image,
        similarity=similarity,
    )


# ============== LIFECYCLE ==============

async def shutdown(sig: signal.Signals):
    logger.info(f"Received {sig.name}, shutting down gracefully...")
    if periodic_sweep.running:
        periodic_sweep.stop()
    await handlers.close()
    await client.stop()


async def main():
    loop = asyncio.get_running_loop()
    stopping = set()

    def on_signal(sig):
        if not stopping:
            stopping.add(asyncio.create_task(shutdown(sig)))

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, on_signal, sig)

    logger.info("Starting Rekognition bot...")
    await client.astart()
    await asyncio.gather(*stopping)


if __name__ == "__main__":
    if not BOT_TOKEN:
        logger.error("REKOGNITION_BOT_TOKEN is not set. Add it to your environment or .env file.")
        sys.exit(1)

    asyncio.run(main())
