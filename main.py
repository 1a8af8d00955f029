#!/usr/bin/env python3
"""
Waste Scan - Main Application
On-device waste classification from a photo or a live camera

This script wires the components together:
- Model provider (MobileNetV2, loaded once and shared)
- Classification pipeline with rule-based category mapping
- Live-scan scheduler over the camera interface

Usage:
    python main.py --image photo.jpg [--json]
    python main.py --live [--simulate | --video clip.mp4] [--config config.json] [--debug]
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

from wastescan.camera_interface import CameraDevice
from wastescan.config import camera_constraints, load_config
from wastescan.errors import WasteScanError
from wastescan.live_scan import LiveScanScheduler
from wastescan.models.category_mapper import ClassificationResult
from wastescan.models.provider import ModelProvider, ModelState
from wastescan.pipeline import ClassificationPipeline


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    """Setup logging configuration"""
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


class WasteScanApp:
    """
    Console front end for the classification core
    Prints results; holds no state the core depends on
    """

    def __init__(self, config: Dict[str, Any], as_json: bool = False):
        self.config = config
        self.as_json = as_json
        self.logger = logging.getLogger(__name__)

        self.provider = ModelProvider(
            config=config.get('model', {}),
            on_state_change=self._on_model_state
        )
        self.pipeline = ClassificationPipeline(self.provider)
        self.scheduler: Optional[LiveScanScheduler] = None
        self.start_time = None

    def _on_model_state(self, state: ModelState):
        self.logger.info(f"Model ready: {state is ModelState.READY}")

    def show_result(self, result: ClassificationResult):
        if self.as_json:
            print(json.dumps(result.to_dict()), flush=True)
            return
        print(f"[{result.category.value}] {result.label} ({result.confidence * 100:.0f}%)")
        print(f"  {result.reasoning}")
        print(f"  Disposal: {result.disposal_instructions}", flush=True)

    def show_error(self, error: Exception):
        message = getattr(error, 'message', None) or str(error) or "Analysis failed."
        print(f"Error: {message}", file=sys.stderr)

    async def classify_image(self, image_path: str) -> int:
        """Classify one still image, returns a process exit code"""
        try:
            result = await self.pipeline.classify(image_path)
        except WasteScanError as e:
            self.logger.error(f"Classification failed: {e}")
            self.show_error(e)
            return 1
        self.show_result(result)
        return 0

    async def run_live(self) -> int:
        """Scan until interrupted, returns a process exit code"""
        live_config = self.config.get('live_scan', {})
        self.scheduler = LiveScanScheduler(
            self.pipeline,
            CameraDevice(),
            on_result=self.show_result,
            constraints=camera_constraints(self.config),
            interval=live_config.get('interval_seconds', 0.8),
            min_confidence=live_config.get('min_confidence', 0.2),
        )

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Not supported on Windows event loops, Ctrl+C still raises
                pass

        try:
            # Load up front so the first frames are not spent waiting
            await self.provider.ensure_ready()
            await self.scheduler.start()
        except WasteScanError as e:
            self.show_error(e)
            return 1

        self.start_time = time.time()
        print("Scanning... press Ctrl+C to stop", flush=True)
        try:
            await stop_event.wait()
        finally:
            print("\nStopping live scan...")
            await self.scheduler.close()
            self._log_final_statistics()
        return 0

    def _log_final_statistics(self):
        if not self.scheduler or not self.start_time:
            return
        stats = self.scheduler.get_status()['statistics']
        runtime_minutes = (time.time() - self.start_time) / 60.0
        self.logger.info(
            f"Final Stats - Runtime: {runtime_minutes:.1f}min, "
            f"Inferences: {stats['inferences']}, "
            f"Shown: {stats['forwarded']}, "
            f"Low confidence: {stats['rejected']}, "
            f"Frame errors: {stats['errors_absorbed']}"
        )


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="On-device waste classification")
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--image', '-i', help='Classify a single image file')
    parser.add_argument('--live', '-l', action='store_true',
                        help='Scan continuously from the camera')
    parser.add_argument('--simulate', '-s', action='store_true',
                        help='Use sample images instead of a camera')
    parser.add_argument('--video', '-v', help='Use video file as input source')
    parser.add_argument('--json', action='store_true',
                        help='Print results as JSON')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    if not args.image and not args.live:
        parser.error("one of --image or --live is required")

    config = load_config(args.config)

    if args.simulate:
        config['camera']['source'] = 'simulated'
    elif args.video:
        config['camera']['source'] = args.video

    if args.debug:
        config['log_level'] = 'DEBUG'

    setup_logging(config.get('log_level', 'INFO'), config.get('log_file'))

    app = WasteScanApp(config, as_json=args.json)
    try:
        if args.image:
            exit_code = asyncio.run(app.classify_image(args.image))
        else:
            exit_code = asyncio.run(app.run_live())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
