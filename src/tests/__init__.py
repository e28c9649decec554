#!/usr/bin/env python3
"""
Test suite for the frame classifier pipeline.
"""

import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def run_all_tests():
    """Run all test suites."""
    import pytest

    print("=" * 80)
    print("FRAME CLASSIFIER TEST SUITE")
    print("=" * 80)
    return pytest.main([os.path.dirname(__file__), "-v"])


def run_specific_tests(test_type):
    """Run specific type of tests.

    Args:
        test_type: One of 'config', 'frames', 'preprocessing', 'classifier',
            'decision', 'annotator', 'pipeline', 'utils', 'cli'
    """
    import pytest

    path = os.path.join(os.path.dirname(__file__), f"test_{test_type}.py")
    if not os.path.exists(path):
        raise ValueError(f"Unknown test type: {test_type}")
    return pytest.main([path, "-v"])


if __name__ == "__main__":
    sys.exit(run_all_tests())
