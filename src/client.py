# src/client.py
import argparse
import asyncio
from fastmcp import Client
from pathlib import Path


from src.sysops.filesystem import get_repo_root

DATA_DEFAULT = Path(get_repo_root()) / "data" / "patients"
CFG_DEFAULT = Path(get_repo_root()) / "config_example.yaml"
URL_DEFAULT = "http://127.0.0.1:8000/mcp"


parser = argparse.ArgumentParser(
    prog="Client", description="Uses the MCP server for STS risk calculation"
)

parser.add_argument(
    "--data",
    type=str,
    default=DATA_DEFAULT,
    help="Set folder of JSON patient records",
)

parser.add_argument(
    "--cfg",
    type=str,
    default=CFG_DEFAULT,
    help="Give configuration file",
)

parser.add_argument(
    "--url",
    type=str,
    default=URL_DEFAULT,
    help="Give MCP server URL",
)


async def main():
    args = parser.parse_args()

    async with Client(args.url) as client:
        print(f"STATUS\tRun STS risk calculation for data folder: {args.data}")
        result = await client.call_tool(
            "sts_pipeline", {"data_folder": str(args.data), "config_file": str(args.cfg)}
        )
        for row in result.data["results"]:
            print(
                f"{row['index']}\t"
                f"mortality {row['mortality']}%\t{row['risk_category']}\t"
                f"confidence {row['confidence']}"
            )


if __name__ == "__main__":
    asyncio.run(main())
