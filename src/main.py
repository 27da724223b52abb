"""
Energy Smart Water Heater Bridge - Main Entry Point
"""

import asyncio
import signal
import sys
import logging
import os

from services.bridge_server import BridgeServer

logger = logging.getLogger(__name__)

async def main():
    """Main entry point"""

    server = None

    try:
        # Get config file path from environment variable or use default
        config_path = os.environ.get('CONFIG_FILE', 'config/config.yaml')
        server = BridgeServer(config_path=config_path)
        logger.info(f"Using configuration file: {config_path}")

        # Handle graceful shutdown
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, server.request_shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass

        await server.start()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Bridge failed: {e}")
        return 1
    finally:
        if server:
            await server.stop()

    return 0

def run():
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nBridge stopped by user")
        sys.exit(0)

if __name__ == "__main__":
    run()
