"""Allow ``python -m workday_checkin``."""

from workday_checkin.main import run_main

run_main()
