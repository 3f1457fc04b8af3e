"""Feedback persistence providers (visitor ratings on assistant answers).

SQLiteFeedbackProvider stores thumbs-up/down ratings, with an optional
category and comment, in the ``chat_feedback`` table.
"""
