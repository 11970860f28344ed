"""docflow — document workflow orchestration engine."""
