"""Main entry point for DataChat"""
import logging
from datachat.config import settings

# Configure root logger from LOG_LEVEL env var before any other imports
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

from datachat.app import main

if __name__ == "__main__":
    main()
