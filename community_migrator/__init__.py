#!/usr/bin/env python3
"""
Community migration tool: MongoDB communities to Firebase
"""

__version__ = "0.1.0"

from community_migrator.core.bundle import ExportBundle, dumps_bundle, loads_bundle
from community_migrator.core.config import load_config

# Import the main classes for easier access
from community_migrator.core.exporter import CommunityExporter
from community_migrator.core.importer import CommunityImporter, ImportResult
from community_migrator.services.identity import IdentityReconciler
from community_migrator.services.media import MediaMigrator
