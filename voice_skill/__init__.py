"""
Voice answer skill.

Receives voice-platform request envelopes, forwards the user's question to an
answer-generation API and speaks the answer back. Answers longer than the
speech budget are split into segments at sentence or word boundaries and
delivered over several turns: the first segment is spoken immediately, and
each "continue" request speaks the next one.

Layers:
- segmenter: pure text splitting
- state: per-session continuation state
- turn_controller: ask / continue orchestration
- answer_source, credentials, transform: the answer-generation client
- localization: per-locale spoken strings
- envelope, handlers, server, lambda_handler: the request/response surface
"""
