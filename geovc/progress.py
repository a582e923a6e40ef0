import sys


class ProgressListener:
    """Receives advisory progress; `cancel()` asks the running operation to stop."""

    def __init__(self):
        self.description = ''
        self.canceled = False

    def set_description(self, description):
        self.description = description

    def set_progress(self, done, total):
        pass

    def complete(self):
        pass

    def cancel(self):
        self.canceled = True


class ConsoleProgressListener(ProgressListener):

    def __init__(self, stream=None):
        super().__init__()
        self.stream = stream or sys.stderr

    def set_description(self, description):
        super().set_description(description)
        print(description, file=self.stream)

    def set_progress(self, done, total):
        print(f'\r{self.description}: {done}/{total}', end='', file=self.stream)
        if done == total:
            print(file=self.stream)
