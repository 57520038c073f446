#!/usr/bin/env python3
"""
Run the unitrack test suite.

The tests never touch the network: every HTTP call goes through the
FakeBackend in tests/conftest.py.

Examples:
    python run_tests.py                        # everything under tests/
    python run_tests.py --file test_pagination.py
    python run_tests.py -k "copy or bulk"      # enrolment paths only
    python run_tests.py --cov                  # coverage for the unitrack package
"""

import argparse
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent


def build_command(args):
    target = f"tests/{args.file}" if args.file else "tests"
    cmd = [sys.executable, "-m", "pytest", target, "--tb=short"]
    cmd.append("-vv" if args.verbose else "-v")

    if args.keyword:
        cmd.extend(["-k", args.keyword])
    if args.cov:
        cmd.extend(["--cov=unitrack", "--cov-report=term-missing", "--cov-report=html"])
    if args.exitfirst:
        cmd.append("-x")
    if args.pdb:
        cmd.append("--pdb")
    return cmd


def main():
    parser = argparse.ArgumentParser(description="Run the unitrack test suite")
    parser.add_argument("-k", "--keyword", help="Only run tests matching this expression")
    parser.add_argument("--file", help="Single module under tests/, e.g. test_course_service.py")
    parser.add_argument("--cov", action="store_true", help="Report coverage of the unitrack package")
    parser.add_argument("-x", "--exitfirst", action="store_true", help="Stop at the first failure")
    parser.add_argument("--verbose", "-v", action="store_true", help="Extra verbose output")
    parser.add_argument("--pdb", action="store_true", help="Drop into debugger on failure")

    cmd = build_command(parser.parse_args())
    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, cwd=ROOT).returncode


if __name__ == "__main__":
    sys.exit(main())
