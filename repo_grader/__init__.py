# Top-level package for the repository grader.

# This project implements:
# - File relevance scoring against task / evidence text
# - Directory-aware batching under a context budget
# - Multi-batch LLM evaluation with carried-forward context
# - Retries with endpoint failover
# - Reconciliation of batch analyses into one verdict

# Subpackages:
#     utils/       → Relevance, chunking, IO, logging helpers
#     models/      → LLM client, judge, response extraction, schemas
#     evaluation/  → Orchestrator, reconciliation, scoring, pipeline
#     experiments/ → Command-line runner
