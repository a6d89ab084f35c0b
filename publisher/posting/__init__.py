"""Post records, content validation and publish orchestration.

Import the orchestrator from publisher.posting.orchestrator; this package
init stays import-light because the adapters depend on its models.
"""
