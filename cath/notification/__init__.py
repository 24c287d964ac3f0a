"""Subscriber notification package.

Fans a newly published hearing list out to every subscriber of its
location via GOV.UK Notify, recording one ``NotificationLog`` row per
attempt.
"""
