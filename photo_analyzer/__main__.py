from photo_analyzer.main import run

run()
