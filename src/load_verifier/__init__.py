"""Load Verification Agent.

Decides whether a freight load offer should be approved, rejected, or
sent to a human for review, based on the broker's credit score, the
broker's FMCSA authorization, and how long ago the load was posted.
"""
