from claimbot.scheduler.main import run

run()
