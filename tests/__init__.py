"""
Tests Package - Unit and integration tests for the course indexer.
==================================================================

Test modules:
- test_ingestion: Loader export resolution, splitter, chunker tests
- test_indexing: Embedding providers, pipeline, vector index, snapshot tests
- test_indexer: Stats reporter and indexing run tests
- test_cli: Command-line interface tests

Run tests with:
    pytest tests/
    pytest tests/ -v --cov=src/course_indexer
"""
