"""Transcript Timeline — keep edited transcript text and timeline selections in sync.

WHY: A voice-editing workflow lets users rewrite the word-timestamped
transcript of a recording as free text. The re-synthesis backend does
not consume text diffs — it needs time ranges on the original audio.
This package turns every text edit into the minimal set of timeline
selections that must be regenerated, without clobbering selections the
user drew or adjusted by hand.

HOW: A three-stage pure pipeline — align (LCS between edited text and
the reference words), extract (runs of unconsumed reference words
become candidate intervals), reconcile (candidates become derived
selections with deterministic ids, carrying forward earlier
adjustments). Around it sit the ambient layers: a duration probe,
a client for the external transcription/re-synthesis backend, an
editing session, an HTTP API, and a CLI.

RULES:
- The core (transcript_timeline.core) is synchronous, pure and in-memory
- Reference words are immutable; a reload replaces them wholesale
- Manual selections are never touched by the reconciler
"""

__version__ = "0.1.0"
