from docverify.cli import main

raise SystemExit(main())
