"""
API service package for the cloud sample.

- app.main: HTTP surface for users, uploads and the event feed, plus health.
- app.cache: Redis store and the latest-users snapshot cache.
- app.events: bounded event feed shared by every instance.
- app.kafka: bus publisher and the subscriber that feeds the event feed.
- app.persistence: PostgreSQL user store.
- app.storage: S3-compatible blob store for uploads.
- app.users / app.uploads: write-path orchestration.

The primary store is authoritative. Cache and bus work is best-effort and
never fails a request.
"""
