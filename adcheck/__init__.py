"""
AdCheck core package.

Modules
───────
platforms   — static catalog of supported ad platforms
models      — Pydantic data models (Verdict, Source, ValidationResult, HistoryItem)
prompts     — prompt construction for a feasibility check
classifier  — ordered marker rules mapping answer text to a Verdict
checker     — Claude + web_search tool: one check, streamed or blocking
history     — newest-first check history (in-memory or SQLite)
session     — per-session state machine driving checks and history restores
"""
