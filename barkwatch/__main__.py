"""
Barkwatch entry point.

Run with: python -m barkwatch
Or: barkwatch (if installed)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import yaml

from barkwatch import __version__
from barkwatch.core.config import Config
from barkwatch.core.pipeline import BarkPipeline
from barkwatch.detectors.audio import AudioDetector, MockAudioDetector, list_input_devices
from barkwatch.detectors.base import BaseDetector
from barkwatch.publishers.base import BasePublisher
from barkwatch.publishers.mqtt import MqttPublisher, MockPublisher


async def run_barkwatch(config: Config, mock: bool = False) -> int:
    """
    Run the Barkwatch pipeline until a signal or a worker failure.

    Returns:
        Process exit status
    """
    print(f"🐕 Starting Barkwatch v{__version__}")
    print("=" * 40)

    publisher: BasePublisher
    detector: BaseDetector

    if mock:
        print("📡 Using mock microphone and publisher for development")
        publisher = MockPublisher()
    else:
        publisher = MqttPublisher(config.mqtt)

    pipeline = BarkPipeline(
        publisher=publisher,
        topics=config.topics,
        pipeline=config.pipeline,
    )

    if mock:
        detector = MockAudioDetector(
            coalescer=pipeline.coalescer,
            threshold=config.audio.threshold,
        )
    else:
        detector = AudioDetector(config.audio, coalescer=pipeline.coalescer)

    # Handle shutdown
    shutdown_event = asyncio.Event()

    def signal_handler():
        print("\n🛑 Shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    # Start components: publisher first, then workers, then the sample source
    await publisher.start()
    await pipeline.start()

    try:
        await detector.start()
    except ConnectionError as e:
        print(f"❌ Audio input failed: {e}")
        await pipeline.stop()
        await publisher.stop()
        return 1

    print("=" * 40)
    print(f"✅ Listening (threshold {config.audio.threshold})")
    print(f"   events  -> {config.topics.event_topic}")
    print(f"   absence -> {config.topics.absence_topic} "
          f"every {config.pipeline.absence_window_seconds:g}s of quiet")
    print("Press Ctrl+C to stop")
    print()

    shutdown_task = asyncio.create_task(shutdown_event.wait())
    workers_task = asyncio.create_task(pipeline.wait())

    done, pending = await asyncio.wait(
        [shutdown_task, workers_task],
        return_when=asyncio.FIRST_COMPLETED,
    )

    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    exit_code = 0
    if workers_task in done:
        for worker in workers_task.result():
            state = worker.get_state()
            print(f"❌ Worker '{worker.name}' stopped: {state.error_message or state.status.value}")
        exit_code = 1

    # Cleanup
    await detector.stop()
    await pipeline.stop()
    await publisher.stop()

    print("👋 Shutdown complete")
    return exit_code


def print_devices() -> int:
    """Print available input devices."""
    try:
        devices = list_input_devices()
    except ConnectionError as e:
        print(f"❌ {e}")
        return 1

    if not devices:
        print("No audio input devices found")
        return 1

    for d in devices:
        print(f"  [{d['index']}] {d['name']} ({d['channels']} ch, {d['default_samplerate']:.0f} Hz)")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="barkwatch",
        description="Publish loud sound events from a microphone to MQTT",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Configuration file path",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use a simulated microphone and print messages instead of publishing",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit",
    )
    parser.add_argument(
        "-i", "--input-device",
        type=str,
        help="Input device name (overrides audio.device)",
    )
    parser.add_argument(
        "-t", "--threshold",
        type=float,
        help="Loudness threshold 0-1 (overrides audio.threshold)",
    )
    parser.add_argument(
        "-b", "--broker",
        type=str,
        help="MQTT broker host (overrides mqtt.host)",
    )
    parser.add_argument(
        "-u", "--username",
        type=str,
        help="MQTT username (overrides mqtt.username)",
    )
    parser.add_argument(
        "-p", "--password",
        type=str,
        help="MQTT password (overrides mqtt.password)",
    )

    args = parser.parse_args()

    if args.list_devices:
        sys.exit(print_devices())

    mock = args.mock or os.environ.get("BARKWATCH_MOCK", "").lower() in ("1", "true", "yes")

    # Find configuration file
    config_paths = [
        args.config,
        Path("config/default.yaml"),
        Path("/etc/barkwatch/config.yaml"),
        Path.home() / ".config/barkwatch/config.yaml",
    ]

    config = None
    for path in config_paths:
        if path and path.exists():
            print(f"Loading config from: {path}")
            try:
                config = Config.load(path)
            except (ValueError, yaml.YAMLError) as e:
                print("Configuration errors:")
                print(f"  - {e}")
                sys.exit(1)
            break

    if config is None:
        print("No config file found, using defaults")
        config = Config.default()

    # Command line overrides
    overrides = {
        "audio.device": args.input_device,
        "audio.threshold": args.threshold,
        "mqtt.host": args.broker,
        "mqtt.username": args.username,
        "mqtt.password": args.password,
    }
    try:
        for path, value in overrides.items():
            if value is not None:
                config.override(path, value)
    except ValueError as e:
        print(f"Invalid option: {e}")
        sys.exit(1)

    # Validate config
    errors = config.validate()
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    logging.basicConfig(
        level=config.system.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    try:
        exit_code = asyncio.run(run_barkwatch(config, mock=mock))
    except KeyboardInterrupt:
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
