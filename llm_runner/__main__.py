from llm_runner.cli import run

run()
