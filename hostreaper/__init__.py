"""Host Reaper.

Per-host sidecar for a container-orchestration agent that:
 - removes orphaned containers whose identity no longer matches the metadata service
 - stops duplicate instances of singleton infrastructure services (metadata, DNS)
 - replays the running container population into the lifecycle event pipeline at startup

Each component takes its collaborators and settings in the constructor so it can
be driven from tests without Docker or a metadata service.
"""
