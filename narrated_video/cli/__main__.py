"""Allow running CLI as: python -m narrated_video.cli"""

import sys
from pathlib import Path

# Load .env file from the project root before anything reads the environment
from dotenv import load_dotenv

env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)

from .main import main

sys.exit(main())
