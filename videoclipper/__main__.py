from videoclipper.cli import main

raise SystemExit(main())
