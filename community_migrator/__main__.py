#!/usr/bin/env python3
"""
Main execution module for the community migration tool
"""

from community_migrator.cli.commands import main

if __name__ == "__main__":
    main()
