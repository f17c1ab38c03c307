"""
GridWar
Turn-based simulation core for a two-player grid strategy game.

Features:
- 25x25 grid with four unit types and one base per player
- Resource -> action -> build turn phases with timed auto-advance
- Worker gathering with per-unit cooldowns and node regeneration
- Victory by base destruction, resource threshold, surrender or draw
- Typed event stream and versioned snapshots
"""
