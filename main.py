import time

from rich.pretty import pprint

from helmsman import *

__prog__ = "helm"


class Timing(CommandFilter):
    async def execute(self, context, next):
        started = time.perf_counter()
        try:
            await next(context)
        finally:
            context.items["elapsed"] = time.perf_counter() - started


@command("greet", "say hello")
class Greet(CommandHandler):
    shout: bool = Option("--shout", "-s", order=0, descr="print in upper case")
    name: str = Option("--name", "-n", order=1, default="world", completions=("world", "there"))

    async def execute(self, context):
        message = f"hello {self.name}"
        print(message.upper() if self.shout else message)


@command("describe", "print the metadata of greet")
class Describe(CommandHandler):
    def execute(self, context):
        pprint(describe(Greet))


if __name__ == '__main__':
    builder = CommandHostBuilder(descr="helmsman demo", shell=True, fancy=True, colorful=True)
    builder.services.add_singleton(Timing)
    builder.add_filter(Timing)
    builder.add_command(Greet)
    builder.add_command(Describe)
    raise SystemExit(builder.build().run())
