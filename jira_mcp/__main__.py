import sys

from jira_mcp.cli import main


sys.exit(main())
