"""Quick run script for the RFP workflow service."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


def main():
    """Main entry point."""
    from rfp_workflow.main import main as cli_main
    cli_main()


if __name__ == "__main__":
    main()
