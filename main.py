import logging
import sys

import requests

from pipeline import run
from report.render import write_report
from utils.config import load_config
from utils.errors import MalformedRecordError, MissingCredentialsError, MissingInputError, OutputWriteError
from utils.logging_setup import setup_logging

logger = logging.getLogger("main")


def main(argv=None):
    config, args = load_config(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        events, views, report = run(config)
    except (MissingInputError, MalformedRecordError, MissingCredentialsError) as e:
        logger.error("Report aborted: %s", e)
        print(f"❌ {e}")
        return 1
    except requests.RequestException as e:
        logger.error("Playlist fetch failed: %s", e)
        print(f"❌ {e}")
        return 1

    try:
        path = write_report(report, config)
    except OutputWriteError as e:
        logger.error("%s", e)
        print(f"❌ {e}")
        return 1

    print(f"✅ Report written: {path}")
    print(f"📊 {len(events):,} plays, {len(views)} tables, {sum(len(s.charts) for s in report.sections)} charts")
    if config.save_tables or config.save_charts:
        print(f"💾 Saved {len(report.written)} file(s) to {config.output_dir}")
    if report.failures:
        print(f"⚠️ {len(report.failures)} file(s) could not be written (see log)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
