"""Forum services: orchestration, queries and backend integrations."""
