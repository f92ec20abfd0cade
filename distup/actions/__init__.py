# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
