"""General-purpose built-in commands: ping, help."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..commands.base import CommandDescriptor, InvocationContext, command
from ..exceptions import CommandError
from ..module_base import CommandModule


class GeneralModule(CommandModule):
    """Liveness check and command listing."""

    name = "general"
    description = "Built-in commands"

    @command("ping")
    async def ping(self, ctx: InvocationContext) -> None:
        """Check that the bot is responding."""
        await ctx.reply("pong")

    @command("help", aliases=("commands",))
    async def help(self, ctx: InvocationContext, name: Optional[str] = None) -> None:
        """List commands, or show usage for one command."""
        prefix = self.ctx.prefix
        if name:
            descriptor = self.ctx.registry.get(name.lstrip(prefix))
            if descriptor is None:
                raise CommandError(f"No command named `{name}`.", command="help")
            await ctx.reply(self._describe(descriptor))
            return
        await ctx.reply(self._build_help_text())

    def _describe(self, descriptor: CommandDescriptor) -> str:
        prefix = self.ctx.prefix
        text = f"{prefix}{descriptor.usage}"
        if descriptor.summary:
            text += f" - {descriptor.summary}"
        if descriptor.aliases:
            text += "\nAliases: " + ", ".join(f"{prefix}{a}" for a in descriptor.aliases)
        return text

    def _build_help_text(self) -> str:
        """Build the complete help text, grouped by module."""
        prefix = self.ctx.prefix
        sections: Dict[str, List[CommandDescriptor]] = {}
        for descriptor in self.ctx.registry.descriptors():
            sections.setdefault(descriptor.module or "other", []).append(descriptor)

        lines = ["Commands:"]
        for module_name, descriptors in sections.items():
            lines.append("")
            lines.append(f"{module_name.title()}:")
            for d in descriptors:
                entry = f"  {prefix}{d.usage}"
                if d.summary:
                    entry += f" - {d.summary}"
                lines.append(entry)
        lines.append("")
        lines.append(f"Mention me instead of typing {prefix} to run a command.")
        return "\n".join(lines)
