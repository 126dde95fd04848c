"""
Single-company research. Prints the researched record as JSON.

Nothing is written to the store. Useful for checking prompts, keys and
scoring on one company before a batch run.

Usage:
    python run_research.py "Acme Corp"
    python run_research.py "株式会社サンプル" --phone 03-1234-5678
"""

import argparse
import json
import sys

from company_research.common.log_setup import setup_logging
from company_research.config import LOG_DIR, load_api_keys
from company_research.errors import ConfigurationError, ErrorClassifier
from company_research.store import InMemoryEntityStore
from company_research.system import CompanyResearchSystem


def main() -> int:
    parser = argparse.ArgumentParser(description="Research one company and print the result")
    parser.add_argument("name", help="Company name")
    parser.add_argument("--phone", default=None, help="Known phone number")
    args = parser.parse_args()

    logger = setup_logging(LOG_DIR, "run_research")

    try:
        system = CompanyResearchSystem.build(load_api_keys(), InMemoryEntityStore())
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    with system:
        result = system.research_one(args.name, args.phone)

    if not result.success:
        logger.error("Research failed (%s): %s", result.error.type.value, result.error.message)
        for kind, hint in ErrorClassifier.solutions_for(result.error.type).items():
            logger.info("  %s: %s", kind, hint)

    print(json.dumps(
        result.model_dump(mode="json", exclude_none=True),
        ensure_ascii=False,
        indent=2,
    ))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
