"""Default studio settings."""

DEFAULTS = {
    "model": "claude-sonnet-4-5-20250929",
    "max_tokens": 16384,
    "temperature": 0.7,
    "agent_timeout": 120,          # seconds per model call
    "max_workers": 4,              # generate-mode fan-out
    "quality_threshold": 0.85,
    "enable_refinement": True,
    "max_debug_attempts": 3,       # fix attempts per debug run
    "max_debug_cycles": 3,         # preview -> debug round-trips
    "bug_pattern_cap": 100,
    "summary_cap": 50,
    "turn_threshold": 20,
    "max_summary_length": 2000,
    "retained_turns": 5,
    "memory_dir": ".agent-memory",
    "max_history_per_file": 50,
    "max_snapshots": 20,
    "max_scan_depth": 5,
}
