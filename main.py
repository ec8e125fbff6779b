"""
Schedule Bot — Entry Point.

`python main.py` loads the saved Directory and starts polling Telegram.
"""

from schedulebot.bot.telegram_bot import main

if __name__ == "__main__":
    main()
