import typer

from .commands import chat, provider

app = typer.Typer(help="Multi-provider LLM chat orchestrator")

app.add_typer(provider.app, name="provider", help="Manage LLM providers")
app.command(name="chat", help="Send one prompt through the orchestrator")(chat.chat)


def main():
    app()


if __name__ == "__main__":
    main()
