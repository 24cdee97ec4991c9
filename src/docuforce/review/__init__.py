"""Remote review rounds: client, verdicts and orchestration."""
