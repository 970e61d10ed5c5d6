import sys

from avatar_crop_tool.app import main

sys.exit(main())
