"""
Top-level package for the WordPress → content store migration utility.

This package bundles all components required to read a WordPress site
through its REST API, copy its images into durable storage, rewrite links
and image references in the content, and write articles, pages, taxonomies
and writers into one tenant of the destination store.  Modules are split
into subpackages:

* :mod:`wp_migrator.extractors` – paginated WordPress REST reader
* :mod:`wp_migrator.models` – typed source records, destination rows and run results
* :mod:`wp_migrator.parsers` – HTML cleanup and content rewriting
* :mod:`wp_migrator.migrators` – destination store, asset pipeline and reference resolution
* :mod:`wp_migrator.utils` – logging, slugs, pre-flight checks and redirect CSV generation

The intention of this separation is to make the tool composable and
testable.  Each layer has no direct knowledge of configuration or
execution strategy; orchestration is handled in the migration_tool.
"""

__version__ = "1.0.0"
