"""Billing scheduler: periodic background jobs over plans and charges.

Schedule overview (all on the same interval, default every 15 minutes,
first run a few seconds after startup):
  - Overdue Detector      - pending charges past due -> overdue + e-mail
  - Due Soon Reminders    - pending charges due within the lead window -> e-mail
  - Charge Materializer   - active plans past their next due date -> new charge
"""
